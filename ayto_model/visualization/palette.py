"""
Probability Palette - one colour scheme for every figure

Rules:
1. Three saturated colours carry meaning (fixed / likely / excluded)
2. Everything else uses the light fill with transparency
3. Yellow only for small annotations
"""
from matplotlib.colors import LinearSegmentedColormap

PALETTE = {
    # Probability exactly 1: proven match
    "fixed":    "#02304A",   # navy
    # High but not certain
    "likely":   "#219EBC",   # cyan blue
    # Probability exactly 0 in a satisfiable result
    "excluded": "#FA8600",   # dark orange
    # Interval / background fill
    "fill":     "#90C9E7",   # light blue, use with alpha 0.25-0.35
    # Small annotations
    "accent":   "#FEB705",   # yellow
    # Spare series
    "aux":      "#136783",   # deep cyan
}

RESULT_STATE_COLORS = {
    "exact":         PALETTE["likely"],
    "approximate":   PALETTE["accent"],
    "unsatisfiable": PALETTE["excluded"],
}

PAPER_RC = {
    'figure.dpi': 150,
    'savefig.dpi': 300,
    'font.size': 10,
    'font.family': 'serif',
    'axes.labelsize': 11,
    'axes.titlesize': 12,
    'xtick.labelsize': 9,
    'ytick.labelsize': 9,
}


def probability_cmap() -> LinearSegmentedColormap:
    """White (0) through light blue to navy (1)"""
    return LinearSegmentedColormap.from_list(
        "ayto_probability",
        ["#FFFFFF", PALETTE["fill"], PALETTE["likely"], PALETTE["fixed"]]
    )


def cell_text_color(probability: float) -> str:
    """Readable annotation colour on top of probability_cmap"""
    return "white" if probability >= 0.6 else "black"
