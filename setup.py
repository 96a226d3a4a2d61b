import setuptools

with open("medialib/.version") as f:
    version = f.read().strip()

setuptools.setup(
    name="medialib",
    version=version,
    python_requires=">=3.11.0",
    license="Apache-2.0",
    entry_points={"console_scripts": ["medialib = medialib.__main__:main"]},
    packages=["medialib"],
    package_data={"medialib": [".version", "py.typed"]},
    install_requires=[
        "appdirs",
        "click",
        "mutagen",
    ],
    extras_require={
        "test": ["pytest"],
    },
)
