[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "twigo"
version = "0.1.0"
description = "A small social-network JSON API with users, posts, follows and products, backed by MongoDB."
requires-python = ">=3.10"
keywords = ["social", "api", "flask", "mongodb", "jwt"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Framework :: Flask",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: Dynamic Content",
]
dependencies = [
    "flask>=2.2",
    "pymongo>=4.0",
    "pyjwt>=2.4",
    "bcrypt>=4.0",
    "python-dotenv>=1.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
]

[project.scripts]
twigo = "twigo.app:main"

[tool.hatch.build.targets.wheel]
packages = ["twigo"]

[tool.pytest.ini_options]
addopts = "-ra"
