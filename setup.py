from __future__ import annotations

from pathlib import Path

from setuptools import find_namespace_packages, setup


ROOT = Path(__file__).resolve().parent


def read_text(path: Path, default: str = "") -> str:
    try:
        return path.read_text(encoding="utf-8").strip()
    except OSError:
        return default


def read_requirements(filename: str) -> list[str]:
    req_path = ROOT / filename
    if not req_path.exists():
        return []
    lines = read_text(req_path).splitlines()
    out: list[str] = []
    for line in lines:
        line = line.strip()
        if not line or line.startswith("#") or line.startswith("-r"):
            continue
        out.append(line)
    return out


version = read_text(ROOT / "simascraper" / "VERSION", default="0.1.0")

setup(
    name="simascraper",
    version=version,
    description="SimaScraper – session emulation and calendar/activity scraping for the SIMA Moodle portal",
    long_description=read_text(ROOT / "README.md"),
    long_description_content_type="text/markdown",
    python_requires=">=3.9",
    # simascraper/ has no __init__.py, so plain find_packages() would skip it
    packages=find_namespace_packages(include=("simascraper", "simascraper.*")),
    package_data={"simascraper": ["VERSION"]},
    install_requires=read_requirements("requirements.txt"),
    extras_require={"dev": read_requirements("requirements-dev.txt")},
    entry_points={"console_scripts": ["simascraper=simascraper.cli:main"]},
)
