from warnings import warn

import matplotlib as mpl

from pyserialplot import CurveDefaults, FitType, RenderMode
from pyserialplot import configure_logging, replay_capture

# --- User configuration dictionary ---
CONFIG = {
    "LINES_PER_TICK": 20,  # lines ingested per 33 ms render tick
    "RENDER_MODE": "Fit",  # curve render mode: "Points", "Lines" or "Fit"
    "FIT_TYPE": "Sine",  # fit model: "None", "Sine", "Triangle" or "Square"
    "SHOW_RAW_POINTS": True,  # overlay raw samples in Fit mode
    "FIT_WINDOW": 200,  # most recent samples used for fitting (min 20)
    "MAX_POINTS": 2000,  # rolling buffer capacity per curve (min 100)
    "SELECT_KEYS": ["freq", "temp"],  # metadata keys shown in the side panel
    "LOG_LEVEL": "INFO",  # logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL
    # ---
    "DATA_PATH": "../data/captures/",
    "CAPTURES": [
        {
            "data": "sine_two_channels.txt",
        },
        {
            "data": "pwm_sweep.txt",
            "FIT_TYPE": "Square",
            "crop": [0, 5000],
        },
    ],
}


def main() -> None:
    """
    Main function to replay all captures.
    """
    # Configure logging
    configure_logging(CONFIG.get("LOG_LEVEL", "INFO"))

    for capture in CONFIG["CAPTURES"]:
        # Merge global config with capture-specific overrides
        merged_config = CONFIG.copy()
        merged_config.update(capture)

        defaults = CurveDefaults(
            render_mode=RenderMode.coerce(merged_config.get("RENDER_MODE", "Lines")),
            fit_type=FitType.coerce(merged_config.get("FIT_TYPE", "None")),
            show_raw_points_in_fit=merged_config.get("SHOW_RAW_POINTS", True),
            fit_window=merged_config.get("FIT_WINDOW", 200),
            max_points=merged_config.get("MAX_POINTS", 2000),
        )

        replay_capture(
            name=merged_config["data"],
            data_path=merged_config["DATA_PATH"],
            lines_per_tick=merged_config.get("LINES_PER_TICK", 50),
            defaults=defaults,
            select_keys=merged_config.get("SELECT_KEYS"),
            crop=merged_config.get("crop"),
            title=merged_config["data"],
            show_plots=True,
        )


if __name__ == "__main__":
    # Set Matplotlib rcParams directly here
    for optn, val in {
        "backend": "QtAgg",
        "figure.dpi": 90,
        "font.family": ("sans-serif",),
        "font.size": 11,
        "legend.fontsize": "x-small",
        "legend.handlelength": 1.5,
        "legend.handletextpad": 0.6,
        "lines.markersize": 4.0,
        "lines.linewidth": 1.8,
        "xtick.labelsize": 10,
        "xtick.major.size": 3,
        "xtick.direction": "in",
        "ytick.labelsize": 10,
        "ytick.direction": "in",
        "ytick.major.size": 3,
        "axes.formatter.useoffset": False,
        "axes.linewidth": 1.4,
        "axes.labelsize": 11,
    }.items():
        if isinstance(val, (list, tuple)):
            val = tuple(val)
        try:
            mpl.rcParams[optn] = val
        except KeyError:
            warn(f"mpl rcparams key '{optn}' not recognised as a valid rc parameter.")
    main()
