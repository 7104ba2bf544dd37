"""
Probability heatmap for an EngineResult

Rows are women, columns are men. Fixed pairs get a navy frame, pairs
excluded by a satisfiable result get an orange cross. An unsatisfiable
result is drawn as an empty grid with its status as title, never as an
"everything excluded" matrix.
"""
from pathlib import Path
from typing import Optional, Union

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.patches import Rectangle

from ..engines.engine_interface import EngineResult
from .palette import PALETTE, PAPER_RC, RESULT_STATE_COLORS, cell_text_color, probability_cmap


def plot_probability_heatmap(
    result: EngineResult,
    output_path: Optional[Union[str, Path]] = None,
    ax=None,
    annotate: bool = True,
    title: Optional[str] = None
):
    """
    Draw the probability matrix.

    Args:
        result: EngineResult to draw
        output_path: Save figure here when given
        ax: Existing axes (a new figure is created otherwise)
        annotate: Write percentages into the cells

    Returns:
        The matplotlib Figure
    """
    df = result.to_dataframe()
    values = df.to_numpy(dtype=float) if df.size else np.zeros((0, 0))

    with plt.rc_context(PAPER_RC):
        if ax is None:
            width = max(4.0, 0.7 * len(df.columns) + 2.5)
            height = max(3.0, 0.5 * len(df.index) + 1.5)
            fig, ax = plt.subplots(figsize=(width, height))
        else:
            fig = ax.figure

        image = ax.imshow(values, cmap=probability_cmap(), vmin=0.0, vmax=1.0, aspect='auto')
        fig.colorbar(image, ax=ax, label='P(perfect match)')

        ax.set_xticks(range(len(df.columns)))
        ax.set_xticklabels(df.columns, rotation=45, ha='right')
        ax.set_yticks(range(len(df.index)))
        ax.set_yticklabels(df.index)
        ax.set_xlabel('Man')
        ax.set_ylabel('Woman')

        if not result.is_unsatisfiable:
            fixed = {(p.woman, p.man) for p in result.fixed_pairs}
            for j, woman in enumerate(df.index):
                for i, man in enumerate(df.columns):
                    p = values[j, i]
                    if (woman, man) in fixed:
                        ax.add_patch(Rectangle((i - 0.5, j - 0.5), 1, 1, fill=False,
                                               edgecolor=PALETTE["fixed"], linewidth=2))
                    elif p == 0.0:
                        ax.plot(i, j, marker='x', color=PALETTE["excluded"], markersize=6)
                        continue
                    if annotate:
                        ax.text(i, j, f"{100 * p:.0f}%", ha='center', va='center',
                                fontsize=8, color=cell_text_color(p))

        state_color = RESULT_STATE_COLORS[result.state.value]
        ax.set_title(title or result.status_label(), color=state_color)
        fig.tight_layout()

        if output_path is not None:
            output_path = Path(output_path)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            fig.savefig(output_path, bbox_inches='tight')

    return fig
