"""AI News Daily: generated AI newspaper, batch pipeline and Streamlit front-end."""

__version__ = "0.1.0"
