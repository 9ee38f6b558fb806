import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import matplotlib.animation as animation
import numpy as np


def create_trajectory_gif(states, refs, center=None, prediction_horizons=None,
                          save_path="mpc_trajectory.gif", interval=100, fps=10):
    """
    Create animated GIF showing the driven path with the MPC prediction of each cycle

    Args:
        states: Vehicle states [T, 4] (X, Y, psi, v)
        refs: First reported waypoint of each cycle [T, 2]
        center: Road centerline points
        prediction_horizons: Global-frame predicted paths, one per cycle
        save_path: Path to save the GIF file
        interval: Interval between frames in milliseconds
        fps: Frames per second for the GIF
    """
    s = np.array(states)
    r = np.array(refs)

    fig, ax = plt.subplots(figsize=(12, 8))

    def animate_frame(frame_idx):
        ax.clear()

        current_states = s[:frame_idx+1]

        if center is not None:
            ax.plot(center[:, 0], center[:, 1], 'k--', alpha=0.4, linewidth=1, label='Centerline')

        if len(r) > 0:
            ax.plot(r[:frame_idx+1, 0], r[:frame_idx+1, 1], 'g.', markersize=4, alpha=0.6,
                    label='Waypoints')

        if len(current_states) > 0:
            ax.plot(current_states[:, 0], current_states[:, 1], 'b-', linewidth=2.5, alpha=0.9,
                    label='Actual Trajectory')

            current_x, current_y, current_psi = current_states[-1, 0], current_states[-1, 1], current_states[-1, 2]
            ax.plot(current_x, current_y, 'ro', markersize=8, label='Current Position')

            arrow_length = 3.0
            ax.arrow(current_x, current_y, arrow_length * np.cos(current_psi),
                     arrow_length * np.sin(current_psi), head_width=0.8, head_length=0.6,
                     fc='red', ec='red', alpha=0.7)

        if prediction_horizons is not None and frame_idx < len(prediction_horizons):
            horizon = np.asarray(prediction_horizons[frame_idx])
            if len(horizon) > 0:
                ax.plot(horizon[:, 0], horizon[:, 1], 'r--', linewidth=2, alpha=0.7,
                        label='Prediction Horizon')

        ax.set_xlabel('X [m]', fontsize=12, fontweight='bold')
        ax.set_ylabel('Y [m]', fontsize=12, fontweight='bold')
        ax.set_title(f'Waypoint MPC - Frame {frame_idx+1}/{len(s)}', fontsize=14, fontweight='bold')
        ax.axis('equal')
        ax.grid(True, alpha=0.3)
        ax.legend(loc='upper right', fontsize=10)

        if len(current_states) > 0:
            info_text = f'Speed: {current_states[-1, 3]:.1f} m/s'
            ax.text(0.02, 0.98, info_text, transform=ax.transAxes,
                    bbox=dict(boxstyle='round', facecolor='lightblue', alpha=0.8),
                    verticalalignment='top', fontsize=10, fontweight='bold')

    print(f"Creating animated GIF with {len(s)} frames...")
    anim = animation.FuncAnimation(fig, animate_frame, frames=len(s),
                                   interval=interval, repeat=True, blit=False)

    anim.save(save_path, writer='pillow', fps=fps, dpi=100)
    plt.close(fig)

    print(f"Animated GIF saved as {save_path}")
    return anim
