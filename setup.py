from setuptools import setup, find_packages


setup(
    name="archweave",
    version="0.1",
    packages=find_packages(include=["archweave", "archweave.*"]),
    description="Rewrite zip, jar and tar.gz archives entry by entry, with digest sidecar files.",
    author="vercingetorx",
    install_requires=[
        "pycryptodomex>=3.23.0",
    ],
    entry_points={
        "console_scripts": [
            "archweave=archweave.cli:main",
        ]
    },
)
