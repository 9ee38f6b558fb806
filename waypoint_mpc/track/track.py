import numpy as np

def circular_track(radius=40.0, points=400):
    theta = np.linspace(0, 2*np.pi, points)
    center = np.vstack([radius*np.sin(theta), radius*(1 - np.cos(theta))]).T
    return center

def sinusoidal_track(length=300.0, amplitude=8.0, points=600):
    """
    Create a sinusoidal road centerline starting at the origin heading +x

    Args:
        length: Total length of the road (meters)
        amplitude: Amplitude of the sinusoid (meters)
        points: Number of points along the centerline

    Returns:
        center: Road centerline points [N, 2]
    """
    x = np.linspace(0, length, points)
    y = amplitude * np.sin(2 * np.pi * x / length)
    center = np.vstack([x, y]).T
    return center

def forward_nearest_index(path_xy, p_xy, last_idx, window=40):
    lo = max(0, last_idx)
    hi = min(len(path_xy), lo + window)
    local = path_xy[lo:hi]
    if len(local) == 0:
        return min(last_idx, len(path_xy) - 1)
    return int(lo + np.argmin(np.linalg.norm(local - p_xy, axis=1)))

def lookahead_waypoints(center, position, last_idx=0, count=6, stride=5):
    """
    Waypoints ahead of the vehicle, as the simulator would report them

    Args:
        center: Road centerline points [N, 2]
        position: Vehicle global position (x, y)
        last_idx: Progress index from the previous cycle
        count: Number of waypoints to return
        stride: Centerline samples between consecutive waypoints

    Returns:
        waypoints: [M, 2] with M <= count (fewer near the end of the road)
        idx: Progress index along the centerline
    """
    idx = forward_nearest_index(center, np.asarray(position, dtype=float), last_idx)
    picks = idx + stride * np.arange(count)
    picks = picks[picks < len(center)]
    return center[picks], idx
