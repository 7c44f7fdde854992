import os
from setuptools import setup


setup(
    name="wavearchive",
    version="1.0",
    packages=["wavearchive"],
    description="Binary archives of observed, synthetic and partial-derivative waveforms",
    package_data={"wavearchive": [os.path.join("configs", "*.json")]},
    include_package_data=True,
    python_requires=">=3.11",
    install_requires=[
        "numpy",
        "pandas",
    ],
    extras_require={"test": ["pytest"]},
)
