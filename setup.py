from __future__ import annotations

from pathlib import Path

from setuptools import find_packages, setup


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


version = read_text(ROOT / "noticeboard" / "VERSION", default="0.1.0")

setup(
    name="noticeboard",
    version=version,
    description="Community Noticeboard – realtime bulletin board client (CLI + interactive)",
    packages=find_packages(exclude=("tests", ".github")),
    package_data={"noticeboard": ["VERSION"]},
    python_requires=">=3.9",
    install_requires=read_requirements("requirements.txt") or ["requests>=2.31", "rich>=13.7"],
    extras_require={"dev": read_requirements("requirements-dev.txt") or ["pytest>=7.4"]},
    entry_points={"console_scripts": ["noticeboard=noticeboard.cli:main"]},
)
