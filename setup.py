import os
from setuptools import setup, find_packages

# Read the version from the package
with open(os.path.join("src", "solenoid_bridge", "__init__.py"), "r") as f:
    for line in f:
        if line.startswith("__version__"):
            exec(line)
            break

# Read long description from README
with open("README.md", "r", encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="solenoid_bridge",
    version=__version__,
    description="Serial-to-HTTP bridge for an arming / solenoid controller",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    package_data={"solenoid_bridge": ["templates/*.html"]},
    install_requires=[
        "pyserial>=3.5",
        "typeguard>=4.0.0",
        "Flask>=2.2",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    python_requires=">=3.8",
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: Microsoft :: Windows",
        "Operating System :: POSIX :: Linux",
        "Intended Audience :: Developers",
        "Topic :: System :: Hardware",
        "Topic :: Utilities",
    ],
    entry_points={
        "console_scripts": [
            "solenoid-bridge=solenoid_bridge.cli:main",
        ],
    },
)
