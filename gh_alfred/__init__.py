"""gh-alfred - cached GitHub repository and crate lookup for Alfred."""

__version__ = "0.3.0"
