from setuptools import setup
import io


with io.open('README.md', encoding='utf-8') as f:
    long_description = f.read()

with io.open('requirements.txt', encoding='utf-8') as f:
    requirements = [r for r in f.read().split('\n') if len(r)]


setup(name='pytest-postgres-server',
      version='0.1.0',
      description='One postgres server shared by nested pytest scopes',
      long_description=long_description,
      long_description_content_type='text/markdown',
      license='MIT',
      packages=['pytest_postgres_server'],
      package_data={'pytest_postgres_server': ['data/*']},
      python_requires='>=3.8',
      install_requires=requirements,
      extras_require={
          'test': ['ephemeral-port-reserve>=1.1', 'docker>=6.0'],
      },
      entry_points={
          'pytest11': ['postgres_server = pytest_postgres_server.plugin'],
      },
      classifiers=['Framework :: Pytest'],
      zip_safe=False)
