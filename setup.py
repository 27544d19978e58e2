from setuptools import setup, find_packages

setup(
    name="fiducial_localization",
    version="0.1",
    packages=find_packages(exclude=['tests']),
    py_modules=['run_localization'],
    install_requires=[
        'numpy',
        'SimpleITK',
        'scipy',
        'tqdm'
    ],
    extras_require={
        'test': ['pytest']
    },
)
