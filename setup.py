import setuptools

setuptools.setup(
    name="hs2client",
    version="0.1.0",
    package_dir={"": "src"},
    packages=setuptools.find_packages(where="src"),
    python_requires=">=3.8",
    # PyHive ships the generated TCLIService Thrift stubs
    install_requires=["pyarrow", "thrift>=0.13.0", "PyHive>=0.6.0"],
    extras_require={"test": ["pytest"]},
    author="hs2client developers",
)
