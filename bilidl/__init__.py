"""Bilibili video downloader: WBI signing, format selection and resumable downloads."""

__version__ = "0.1.0"
