from setuptools import setup, find_packages

VERSION = open("chronicle/VERSION").read().strip()

reqs = open("requirements.txt").read().strip().split("\n")

test_reqs = open("requirements-test.txt").read().strip().split("\n")

setup(
    name="chronicle",
    version=VERSION,
    packages=find_packages(exclude=["tests.*", "tests"]),
    include_package_data=True,
    package_data={
        "chronicle": ["py.typed", "VERSION", "web/templates/*.html", "web/templates/*/*.html"]
    },
    zip_safe=False,
    install_requires=reqs,
    extras_require={"tests": test_reqs},
)
