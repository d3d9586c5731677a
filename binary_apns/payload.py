import json
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Union

from .errors import MalformedJsonError

_ALERT_KEYS = {
    'title': 'title',
    'title-loc-key': 'title_localization_key',
    'title-loc-args': 'title_localization_args',
    'body': 'body',
    'loc-key': 'body_localization_key',
    'loc-args': 'body_localization_args',
    'action-loc-key': 'action_localization_key',
    'launch-image': 'launch_image',
}

_APS_KEYS = {'alert', 'badge', 'sound', 'content-available', 'category'}


class PayloadAlert(NamedTuple):
    title: Optional[str] = None
    title_localization_key: Optional[str] = None
    title_localization_args: Optional[List[str]] = None
    body: Optional[str] = None
    body_localization_key: Optional[str] = None
    body_localization_args: Optional[List[str]] = None
    action_localization_key: Optional[str] = None
    launch_image: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping) -> 'PayloadAlert':
        unknown = set(data) - set(_ALERT_KEYS)
        if unknown:
            raise MalformedJsonError(
                "Unknown alert keys: {}".format(", ".join(sorted(unknown))))
        for key, value in data.items():
            if key.endswith('args') and not isinstance(value, list):
                raise MalformedJsonError("'{}' must be a list".format(key))
        return cls(**{_ALERT_KEYS[key]: value for key, value in data.items()})

    def as_dict(self):
        result = dict()
        for key, field in _ALERT_KEYS.items():
            value = getattr(self, field)
            if value is not None:
                result[key] = list(value) if key.endswith('args') else value
        return result


class Payload(NamedTuple):
    alert: Optional[Union[PayloadAlert, str, Dict[str, Any]]] = None
    badge: Optional[int] = None
    sound: Optional[str] = None
    content_available: Optional[bool] = None
    category: Optional[str] = None
    custom: Optional[Dict[str, Any]] = None
    aps_extra: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Mapping) -> 'Payload':
        """
        Build a payload from an already decoded JSON object.

        Keys outside ``aps`` are kept verbatim as custom keys, and so are
        ``aps`` keys without a dedicated field (``thread-id``,
        ``mutable-content``...). An alert object with keys outside the
        known set is forwarded as a plain mapping.
        """
        if not isinstance(data, Mapping):
            raise MalformedJsonError("Payload must be a JSON object")
        aps = data.get('aps', {})
        if not isinstance(aps, Mapping):
            raise MalformedJsonError("'aps' must be a JSON object")
        alert = aps.get('alert')
        if isinstance(alert, Mapping):
            if set(alert) <= set(_ALERT_KEYS):
                alert = PayloadAlert.from_dict(alert)
            else:
                alert = dict(alert)
        badge = aps.get('badge')
        if badge is not None and (isinstance(badge, bool) or
                                  not isinstance(badge, int)):
            raise MalformedJsonError("'badge' must be an integer")
        extra = {key: value for key, value in aps.items()
                 if key not in _APS_KEYS}
        custom = {key: value for key, value in data.items() if key != 'aps'}
        return cls(alert=alert,
                   badge=badge,
                   sound=aps.get('sound'),
                   content_available=bool(aps.get('content-available')),
                   category=aps.get('category'),
                   custom=custom or None,
                   aps_extra=extra or None)

    def with_badge(self, badge: Optional[int]) -> 'Payload':
        if badge is not None and badge < 0:
            badge = None
        return self._replace(badge=badge)

    def with_sound(self, sound: Optional[str]) -> 'Payload':
        return self._replace(sound=sound)

    def with_custom(self, key: str, value: Any) -> 'Payload':
        if key == 'aps':
            raise ValueError("'aps' is reserved")
        custom = dict(self.custom or {})
        custom[key] = value
        return self._replace(custom=custom)

    def as_dict(self):
        result = dict(aps={})
        aps_dict = result['aps']
        if self.alert is not None:
            if isinstance(self.alert, PayloadAlert):
                alert = self.alert.as_dict()
            else:
                alert = self.alert
            aps_dict['alert'] = alert
        if self.badge is not None and self.badge >= 0:
            aps_dict['badge'] = self.badge
        if self.sound is not None:
            aps_dict['sound'] = self.sound
        if self.content_available:
            aps_dict['content-available'] = 1
        if self.category is not None:
            aps_dict['category'] = self.category
        if self.aps_extra is not None:
            aps_dict.update(self.aps_extra)
        if self.custom is not None:
            result.update(self.custom)
        return result

    def to_json(self) -> bytes:
        return json.dumps(self.as_dict(), separators=(',', ':'),
                          ensure_ascii=False).encode('utf-8')


__all__ = ["Payload", "PayloadAlert"]
