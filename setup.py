from setuptools import setup, find_packages

setup(
    name="trafficlens",
    version="0.1.0",
    description="Live packet classification and per-host traffic statistics over a Socket.IO control channel",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "click>=8.0.0",
        "scapy>=2.5.0",
        "flask>=2.2",
        "flask-socketio>=5.3",
        "simple-websocket>=0.10",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "trafficlens=trafficlens_cli.main:cli",
        ],
    },
    python_requires=">=3.8",
)
