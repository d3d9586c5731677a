from setuptools import setup

install_requires = [
    "cryptography>=3.1",
    "rich>=10.0",
    "typer>=0.9,<0.26",
    "typing_extensions>=4.0",
]

setup(
    name='binary-apns',
    version='0.1.0',
    install_requires=install_requires,
    extras_require={
        'test': ['pytest>=7.0', 'pytest-asyncio>=0.21'],
    },
    packages=['binary_apns'],
    entry_points={
        'console_scripts': ['binary-apns=binary_apns.cli:run'],
    },
    python_requires='>=3.8',
    license='MIT',
    description='asyncio client for the Apple Push Notification Service binary gateway'
)
