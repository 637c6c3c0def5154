"""
Setup script for Mesh Accel package
"""
from setuptools import setup, find_packages
from pathlib import Path

# Чтение README для long_description
this_directory = Path(__file__).parent
readme_path = this_directory / "README.md"
if readme_path.exists():
    long_description = readme_path.read_text(encoding='utf-8')
else:
    long_description = "Mesh Accel - BVH, k-d tree and octree construction over triangle meshes"

setup(
    name="mesh-accel",
    version="0.1.0",
    description="Acceleration structures (BVH, k-d trees, octree) over triangle meshes with refit",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["main"],
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "Topic :: Multimedia :: Graphics :: 3D Rendering",
        "Topic :: Scientific/Engineering",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
    python_requires=">=3.8",

    # Зависимости
    install_requires=[
        "numpy>=1.21.0",
        "psutil>=5.8.0",
    ],

    # Опциональные зависимости
    extras_require={
        "mesh": ["open3d>=0.15.0"],
        "full": [
            "open3d>=0.15.0",
        ],
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=3.0.0",
            "black>=22.0.0",
            "flake8>=4.0.0",
            "mypy>=0.950",
        ],
    },

    # Точка входа для CLI
    entry_points={
        "console_scripts": [
            "mesh-accel=main:main",
        ],
    },

    include_package_data=True,
    zip_safe=False,
)
