"""
Core visualization primitive: Figure wrapper.

Plot functions return a ``Figure`` rather than a bare matplotlib figure so
callers get one way to save, embed and release every plot.
"""

from __future__ import annotations

import base64
import io
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Literal, Optional

import matplotlib.figure
import matplotlib.pyplot as plt

__all__ = ['Figure', 'OutputFormat']

OutputFormat = Literal["png", "pdf", "svg"]
_FORMATS = ("png", "pdf", "svg")


@dataclass
class Figure:
    """
    Wrapper for a matplotlib figure with title and provenance.

    Attributes
    ----------
    fig : matplotlib.figure.Figure
        The underlying figure object
    title : str
        Human-readable title for the figure
    description : str
        Longer description explaining what the figure shows
    metadata : dict
        Additional metadata (creation time, parameters used, etc.)

    Examples
    --------
    >>> figure = plot_abundance(tse, "counts", rank="Phylum", top=8)
    >>> figure.save("phylum_composition.pdf")
    >>> figure.close()
    """
    fig: matplotlib.figure.Figure
    title: str
    description: str = ""
    metadata: dict = field(default_factory=dict)

    def __post_init__(self):
        if "created_at" not in self.metadata:
            self.metadata["created_at"] = datetime.now().isoformat()

    def save(
        self,
        path: Path | str,
        format: Optional[OutputFormat] = None,
        dpi: int = 300,
        **kwargs
    ) -> Path:
        """
        Save figure to file.

        Parameters
        ----------
        path : Path or str
            Output file path. Format inferred from extension if not specified.
        format : str, optional
            Output format; unknown extensions fall back to png.
        dpi : int, default 300
            DPI for raster formats. Ignored for vector formats.

        Returns
        -------
        Path
            The path where the figure was saved.
        """
        path = Path(path)

        if format is None:
            format = path.suffix.lstrip(".").lower()
            if format not in _FORMATS:
                format = "png"

        path.parent.mkdir(parents=True, exist_ok=True)
        save_kwargs = {
            "dpi": dpi,
            "bbox_inches": "tight",
            "facecolor": "white",
            **kwargs
        }
        self.fig.savefig(path, format=format, **save_kwargs)
        return path

    def to_base64(self, format: str = "png", dpi: int = 150) -> str:
        """Figure as a base64-encoded image, for embedding in HTML."""
        buf = io.BytesIO()
        self.fig.savefig(buf, format=format, dpi=dpi, bbox_inches="tight")
        return base64.b64encode(buf.getvalue()).decode()

    def close(self):
        """Close the figure to free memory."""
        plt.close(self.fig)
