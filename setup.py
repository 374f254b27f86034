from setuptools import find_packages, setup


extras_require = {}

extras_require["test"] = [
    'pytest>=7.4,<9.0',
    'pytest-mock>=3.12,<4.0',
]

extras_require["all"] = [
    *extras_require["test"],
]


setup(
    name='treasury',
    version='0.1.0',
    packages=find_packages(include=['treasury', 'treasury.*']),
    license='MIT',
    description='Multi-tenant treasury disbursement core: organizations, beneficiaries, tiers and payouts',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    install_requires=[
        'python-dotenv>=1.0.0,<2.0',
        'python-dateutil>=2.8.2,<3.0',
        'PyMongo>=4.6.3,<5.0',
    ],
    extras_require=extras_require,
    python_requires=">=3.10"
)
