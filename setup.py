from setuptools import setup, find_packages

setup(
    name='memoria',
    version='1.0.0',
    description='A capacity-bounded keyed store for typed records, persisted to JSON or SQLite.',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    packages=find_packages(exclude=['tests']),
    install_requires=[
        'SQLAlchemy',
        'python-dotenv',
    ],
    extras_require={
        'test': ['pytest'],
    },
    classifiers=[
        'Programming Language :: Python :: 3.9',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
    ],
    python_requires='>=3.9',
)
