from setuptools import find_packages, setup

setup(
    name='betvex-setup',
    version='0.1.0',
    description='Provision accounts, matches and bets on the BetVEX testnet contracts',
    packages=find_packages(exclude=['tests', 'tests.*']),
    package_data={
        '': [
            '*.yaml',
            '*.yml',
            '*.json',
        ],
    },
    python_requires='>=3.7',

    entry_points={
        'console_scripts': [
            'betvex-setup=betvex_setup.__main__:main',
        ],
    },
    install_requires=[
        'click',
        'gevent',
        'jinja2',
        'near-api-py',
        'python-dotenv',
        'pyyaml',
        'requests',
        'structlog',
    ],
    extras_require={
        'test': [
            'pytest',
            'responses',
        ],
    },
)
