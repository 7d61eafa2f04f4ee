from setuptools import find_packages, setup

# Minimal setup.py to allow pip installation in environments (like p4a) that
# default to legacy builds and need explicit python_requires.

package_list = find_packages(
  include=[
    "entrypoints",
    "entrypoints.*",
    "launch",
    "launch.*",
    "os_interfaces",
    "os_interfaces.*",
    "shell",
    "shell.*",
    "surfaces",
    "surfaces.*",
  ]
)

setup(
  name="trailhead",
  version="0.1.0",
  description="Launch routing shell: attribution-driven choice between a remote web container and a bundled legacy experience",
  python_requires=">=3.11",
  packages=package_list,
  include_package_data=True,
  install_requires=[
    "fastapi==0.119.0",
    "uvicorn[standard]",
    "pywebview",
    "pyyaml",
    "pydantic",
    "python-dotenv",
    "platformdirs",
    "keyring",
    "httpx",
    "asgi-correlation-id",
  ],
  extras_require={
    "android": ["pyjnius", "cython==3.0.12", "buildozer"],
    "linux": ["desktop-notifier"],
    "dev": ["pytest", "pytest-asyncio", "pytest-cov", "desktop-notifier"],
  },
  entry_points={
    "console_scripts": [
      "trailhead=entrypoints.app_linux:main",
    ],
  },
)
