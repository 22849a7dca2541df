from __future__ import annotations

from pathlib import Path

from setuptools import find_packages, setup


def _read_requirements() -> list[str]:
    requirements_path = Path(__file__).with_name("requirements.txt")
    if not requirements_path.exists():
        return []
    return [line.strip() for line in requirements_path.read_text(encoding="utf-8").splitlines() if line.strip() and not line.startswith("#")]


setup(
    name="laserdesk",
    version="0.3.0",
    description="Spreadsheet import, reconciliation and reporting for field-maintenance incident tracking",
    author="LaserDesk",
    python_requires=">=3.10",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=_read_requirements(),
    extras_require={
        "test": ["pytest>=7"],
        "postgres": ["psycopg2-binary>=2.9"],
    },
    include_package_data=True,
    entry_points={
        "console_scripts": [
            "laserdesk-import=laserdesk.importer:main",
            "laserdesk-report=laserdesk.export_utils:main",
        ]
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
)
