"""Invoke tasks for the cloudbridge project."""

from invoke import task

PACKAGE = "cloudbridge"


@task
def test(c, verbose=False, coverage=True):
    """Run all tests with coverage.

    Args:
        verbose: Show verbose output
        coverage: Generate coverage report
    """
    cmd = "pytest"
    if verbose:
        cmd += " -v"
    if coverage:
        cmd += f" --cov={PACKAGE} --cov-report=term-missing"
    c.run(cmd)


@task
def test_unit(c, verbose=False):
    """Run unit tests only."""
    c.run("pytest tests/unit" + (" -v" if verbose else ""))


@task
def test_integration(c, verbose=False):
    """Run CLI tests only."""
    c.run("pytest tests/integration" + (" -v" if verbose else ""))


@task
def format(c, check=False):
    """Format code with black.

    Args:
        check: Only check formatting without making changes
    """
    cmd = f"black {PACKAGE}/ tests/"
    if check:
        cmd += " --check"
    c.run(cmd)


@task
def lint(c, fix=False):
    """Lint code with ruff.

    Args:
        fix: Automatically fix issues
    """
    cmd = f"ruff check {PACKAGE}/ tests/"
    if fix:
        cmd += " --fix"
    c.run(cmd)


@task
def typecheck(c):
    """Run type checking with mypy."""
    c.run(f"mypy {PACKAGE}/")


@task
def quality(c, fix=False):
    """Run formatter, linter and type checker."""
    print("🎨 Running formatter...")
    format(c, check=not fix)

    print("\n🔍 Running linter...")
    lint(c, fix=fix)

    print("\n📊 Running type checker...")
    typecheck(c)


@task
def clean(c):
    """Clean build artifacts and cache files."""
    patterns = [
        "build/",
        "dist/",
        "*.egg-info",
        "**/__pycache__",
        ".pytest_cache/",
        ".coverage",
        "htmlcov/",
        ".mypy_cache/",
        ".ruff_cache/",
    ]

    for pattern in patterns:
        c.run(f"rm -rf {pattern}", warn=True)


@task
def install(c, dev=False):
    """Install the package, optionally with development dependencies."""
    c.run("pip install -e '.[dev]'" if dev else "pip install -e .")


@task(pre=[quality, test])
def ci(c):
    """Run all CI checks (quality + tests)."""
    print("\n✅ All CI checks passed!")
