from setuptools import setup

setup(
    name = "StarlightPI",
    packages = ["starlightpi"],
    version = "0.1.0",
    license = "MIT",
    description = "Cached Minecraft skin renders from the Starlight Skins API.",
    keywords = ["Minecraft", "Skin", "Render", "Starlight", "Cache"],
    python_requires = ">=3.8",
    install_requires = [
        "aiohttp",
        "Pillow"
    ],
    extras_require = {
        "test": [
            "pytest",
            "pytest-asyncio",
        ],
    },
      classifiers=[
    'Development Status :: 3 - Alpha',
    'Intended Audience :: Developers',
    'Topic :: Games/Entertainment',
    'License :: OSI Approved :: MIT License',
    'Programming Language :: Python :: 3',
    'Programming Language :: Python :: 3.8',
    'Programming Language :: Python :: 3.9',
    'Programming Language :: Python :: 3.10',
    'Programming Language :: Python :: 3.11',
    'Programming Language :: Python :: 3.12',
  ],
)
