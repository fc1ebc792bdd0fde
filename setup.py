from setuptools import setup, find_packages

setup(
    name="looplaw",
    version="1.0",
    description="Loop law constraints for loopless flux analysis with the COBRApy framework",
    long_description=("Augments flux balance LPs of constraint-based metabolic models with binary and energy variables "
                      "that forbid thermodynamically infeasible internal loops (loopless FBA). Includes null space "
                      "preprocessing, connected components of loops, EFM-based reaction links and variable merging."),
    long_description_content_type="text/plain",
    license="Apache License 2.0",
    python_requires=">=3.8",
    packages=find_packages(include=["looplaw", "looplaw.*"]),
    install_requires=["cobra", "numpy", "scipy>=1.9", "pandas"],
    extras_require={
        "efm": ["efmtool"],
        "test": ["pytest", "pytest-timeout"],
    },
    classifiers=[
        "Intended Audience :: Science/Research", "Development Status :: 3 - Alpha", "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10", "Programming Language :: Python :: 3.11", "Programming Language :: Python :: 3.12",
        "Natural Language :: English", "Operating System :: OS Independent", "Topic :: Scientific/Engineering :: Bio-Informatics"
    ],
    keywords=["metabolism", "constraint-based", "mixed-integer", "loopless", "thermodynamics"],
    zip_safe=False,
)
