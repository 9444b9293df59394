import re
from pathlib import Path

from setuptools import setup


VERSION = re.search(
    r'^__version__ = "([^"]+)"',
    (Path(__file__).parent / "sheet_intake" / "__init__.py").read_text(encoding="utf-8"),
    re.MULTILINE,
).group(1)


setup(
    name="sheet-intake",
    version=VERSION,
    description="Spreadsheet ingestion and duplicate reconciliation for customer imports",
    packages=["sheet_intake"],
    python_requires=">=3.9",
    install_requires=[
        "pandas",
        "chardet",
        "openpyxl",
        "rapidfuzz",
    ],
    extras_require={
        "excel-legacy": ["xlrd"],
        "ods": ["odfpy"],
        "all": ["xlrd", "odfpy"],
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "sheet-intake=sheet_intake.cli:main",
        ]
    },
)
