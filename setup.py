"""
Packaging script for PyPI.
"""
import setuptools

setuptools.setup(
	name='brine-pickle',
	version='0.1.0',
	packages=['brine', ],
	entry_points={
		'console_scripts': ["brine = brine.cmdline:main"],
	},
	license='MIT',
	description='Decode Python pickles into a generic value tree without executing any of them',
	long_description=open('README.md').read(),
	long_description_content_type="text/markdown",
	classifiers=[
		"Programming Language :: Python :: 3.12",
		"License :: OSI Approved :: MIT License",
		"Operating System :: OS Independent",
		"Development Status :: 3 - Alpha",
		"Intended Audience :: Developers",
		"Topic :: Software Development :: Disassemblers",
		"Topic :: Security",
		"Environment :: Console",
    ],
	python_requires='>=3.11',
	install_requires=[
		"booze-tools>=0.6.2.1",
	]
)
