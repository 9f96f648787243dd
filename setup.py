from setuptools import setup

setup(
    name="hub-spoke-network",
    version="1.0.0",
    description="Hub-and-spoke Azure network provisioning with topology and dependency resolution",
    author="ECP SRE",
    package_dir={"": "src"},
    py_modules=[
        "apply",
        "auth",
        "cli",
        "compute",
        "errors",
        "extensions",
        "models",
        "network",
        "orchestrator",
        "plan",
        "policy",
        "registry",
        "reporting",
        "routing",
        "topology",
    ],
    install_requires=[
        "azure-core>=1.29.0",
        "azure-identity>=1.15.0",
        "azure-mgmt-network>=25.0.0",
        "azure-mgmt-resource>=23.0.0,<26",
        "pyyaml>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "hubspoke=cli:main",
        ],
    },
    python_requires=">=3.11",
)
