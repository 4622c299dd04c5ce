from setuptools import setup, find_packages
from os import path

# Get the absolute path of the directory containing the script
working_directory = path.abspath(path.dirname(__file__))

# Read the contents of the README.md file
with open(path.join(working_directory, 'README.md'), encoding='utf-8') as f:
    long_description = f.read()

# Read the contents of the requirements.txt file
with open(path.join(working_directory, 'requirements.txt')) as f:
    requirements = [line for line in f.read().splitlines() if line and not line.startswith('#')]

# Set up the package
setup(
    name='roirad',
    version='0.1.0',
    description='ROI texture radiomics: histogram, GTSDM, NGTDM, GLZSM and fractal features',
    long_description=long_description,
    long_description_content_type='text/markdown',
    packages=find_packages(exclude=['tests', 'tests.*']),
    python_requires='>=3.9',
    install_requires=requirements,
    extras_require={'test': ['pytest']},
)
