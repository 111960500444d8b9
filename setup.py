from setuptools import find_packages, setup

package_name = 'faceid'

setup(
    name=package_name,
    version='0.1.0',
    packages=find_packages(exclude=['tests']),
    python_requires='>=3.11',
    install_requires=[
        'setuptools',
        'aiohttp>=3.9,<4',
        'websockets>=12',
        'tomli-w>=1.0',
        'numpy',
        'opencv-python',
    ],
    extras_require={
        'test': ['pytest', 'pytest-asyncio'],
    },
    zip_safe=True,
    maintainer='Face ID Maintainers',
    maintainer_email='faceid@localhost',
    description='Face ID kiosk: task-queue state machine for face login and enrollment over rosbridge.',
    license='Apache-2.0',
    tests_require=['pytest', 'pytest-asyncio'],
    entry_points={
        'console_scripts': [
            'faceid = faceid.cli:main',
        ],
    },
)
