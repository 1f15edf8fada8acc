from setuptools import setup, find_packages
setup(
    name="inventory_search",
    version="0.1.0",
    package_dir={"": "src"},
    packages=find_packages("src"),
    include_package_data=True,
    python_requires=">=3.9",
    install_requires=[
        "fastapi",
        "pydantic>=2",
        "requests",
        "supabase",
        "uvicorn",
    ],
    extras_require={
        "test": [
            "pytest",
            "httpx",
        ]
    },
    entry_points={
        'console_scripts': [
            'inventory_search=inventory_search.__main__:main'
        ]
    }
)
