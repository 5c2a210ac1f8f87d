from setuptools import setup, find_packages

setup(
    name='BiasCalibrator',
    version='0.1',
    packages=find_packages(exclude=['tests', 'tests.*']),
    install_requires=[
        'pandas>=1.5,<3',
        'numpy>=1.24',
        'networkx>=3.0',
    ],
    extras_require={
        'test': [
            'pytest>=7.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'biascalibrator=BiasCalibrator.cli:main'
        ]
    },
    description='CLI tool and library for estimating and calibrating taxonomic bias in metagenomic measurements',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    license='MIT',
    classifiers=[
        'Programming Language :: Python :: 3',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
        'Topic :: Scientific/Engineering :: Bio-Informatics',
        'Intended Audience :: Science/Research',
    ],
    python_requires='>=3.9',
)
