"""Daily report dispatcher: workflow trigger, HTML report and email delivery."""

__version__ = "0.1.0"
