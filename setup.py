from setuptools import find_packages, setup

setup(
    name='tryst',
    version='0.1',
    packages=find_packages('src'),
    package_dir={'': 'src'},
    license='MIT License',
    description='A reader for a small parenthesized Lisp notation',
    python_requires='>=3.9',
    install_requires=[
        'attrs>=22.2.0',
        'prompt-toolkit>=3.0.0',
        'pygments>=2.9',
        'pyrsistent>=0.18.0',
    ],
    extras_require={
        'test': [
            'pytest>=7.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'tryst = tryst.cli:invoke_cli',
        ],
    },
)
