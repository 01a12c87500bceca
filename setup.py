from setuptools import setup, find_packages

setup(
    name='sitecrawler',
    version='0.1.0',
    packages=find_packages(exclude=['tests', 'tests.*']),
    include_package_data=True,
    install_requires=[
        'fastapi>=0.110',
        'uvicorn[standard]',
        'pydantic>=2.0',
        'pydantic-settings>=2.0',
        'python-dotenv',
        'redis>=4.5',
        'celery>=5.3',
        'httpx>=0.25',
        'beautifulsoup4>=4.12',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-asyncio',
            'fakeredis>=2.20',
        ],
    },
    description='A queue-driven, depth-bounded crawler that enumerates the pages of a website.',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    classifiers=[
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Operating System :: OS Independent',
    ],
    python_requires='>=3.9',
)
