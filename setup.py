# -*- coding: utf-8 -*-
from setuptools import setup

setup(
    name='procbackend',
    version='0.1',
    description='Build shell commands and kill processes on any platform.',
    long_description=open('README.rst').read(),
    packages=['procbackend'],
    license="MIT Licence",
    python_requires='>=3.6',
    install_requires=['paramiko'],
    extras_require={'test': ['pytest']},
    classifiers=['License :: OSI Approved :: MIT License',
                 'Development Status :: 3 - Alpha',
                 'Intended Audience :: Developers',
                 'Programming Language :: Python',
                 'Programming Language :: Python :: 3',
                 'Operating System :: Unix',
                 'Operating System :: MacOS',
                 'Operating System :: Microsoft :: Windows',
                 'Topic :: System :: Systems Administration'])
