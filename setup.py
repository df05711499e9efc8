from setuptools import setup, find_packages
import os

install_requires = ["lark", "pydantic>=2"]

# Define optional dependencies for development
extras_require = {"dev": ["pytest"], "test": ["pytest"]}

setup(
    name="tshost",
    version="0.4.0",
    packages=find_packages(where=".", exclude=["tests", "tests.*"]),
    install_requires=install_requires,
    extras_require=extras_require,
    python_requires=">=3.9",
    entry_points={
        "console_scripts": [
            "tshost = tshost.cli:main",
        ],
    },
    include_package_data=True,
    package_data={"tshost.service.lite": ["typescript.lark", "lib/*.d.ts"]},
    description="An incremental compilation host that keeps a versioned view of TypeScript sources for a long-lived compiler service.",
    long_description=open("README.md").read() if os.path.exists("README.md") else "",
    long_description_content_type="text/markdown",
)
