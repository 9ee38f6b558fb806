"""
Closed-loop MPC simulation on a synthetic road with command line interface
"""
import argparse
import logging
from collections import deque

import numpy as np

from waypoint_mpc.config.params import PredictionHorizon, load_config
from waypoint_mpc.control.pipeline import MPCController
from waypoint_mpc.track.frames import to_global_frame
from waypoint_mpc.track.track import circular_track, lookahead_waypoints, sinusoidal_track
from waypoint_mpc.vehicle.actuators import ActuatorModel
from waypoint_mpc.vehicle.dynamics import step
from waypoint_mpc.vehicle.state import Pose

SIM_DT = 0.02  # integration step of the simulated vehicle
CYCLE = 0.1  # telemetry period
STEER_RATE = 3.0  # rad/s
ACCEL_RATE = 5.0  # m/s^3

TRACKS = {
    "sine": (sinusoidal_track, 10),
    "circle": (circular_track, 5),
}


def run_simulation(config, steps=300, track="sine", initial_speed=5.0, waypoint_count=6, verbose=True):
    """
    Drive the simulated vehicle along a synthetic road with the MPC controller

    Commands computed at the start of a cycle reach the actuators
    ``config.latency`` seconds later, like on the real vehicle; with a
    latency of one full cycle a command takes effect as the next one is
    computed. The controller is told the command the actuators are
    tracking.

    Args:
        config: ControllerConfig
        steps: Maximum number of control cycles
        track: "sine" or "circle"
        initial_speed: Starting speed (m/s)
        waypoint_count: Waypoints reported per cycle

    Returns:
        dict with states [T, 4], references [T, 2], global prediction
        horizons, lateral errors and the number of fallback cycles
    """
    make_track, stride = TRACKS[track]
    center = make_track()
    controller = MPCController(config)
    act = ActuatorModel(config.vehicle, STEER_RATE, ACCEL_RATE)

    x = np.array([center[0, 0], center[0, 1], 0.0, initial_speed])
    idx = 0
    states, refs, prediction_horizons, errors = [], [], [], []
    fallbacks = 0
    substeps = int(round(CYCLE / SIM_DT))
    delay = int(round(config.latency / SIM_DT))  # substeps from command to actuator

    # Command the actuator currently tracks, and issued commands still in flight
    u_active = np.zeros(2)
    pending = deque()  # (release substep, command)
    tick = 0

    for t in range(steps):
        waypoints, idx = lookahead_waypoints(center, x[:2], idx, waypoint_count, stride)
        if idx >= len(center) - stride * 2:
            if verbose:
                print(f"Destination reached after {t} cycles")
            break

        while pending and pending[0][0] <= tick:
            u_active = pending.popleft()[1]

        pose = Pose(x[0], x[1], x[2])
        output = controller.plan(waypoints, pose, x[3], u_active[0], u_active[1])
        if output.fallback:
            fallbacks += 1
        pending.append((tick + delay, output.actuation.as_array()))

        for _ in range(substeps):
            while pending and pending[0][0] <= tick:
                u_active = pending.popleft()[1]
            u = act.apply(u_active, SIM_DT)
            x = step(x, u, SIM_DT, config.vehicle)
            tick += 1

        states.append(x.copy())
        refs.append(waypoints[0])
        prediction_horizons.append(to_global_frame(pose, output.predicted_path))
        errors.append(float(np.min(np.linalg.norm(center - x[:2], axis=1))))

        if verbose and t % 50 == 0:
            print(f"Step {t}/{steps}: Position ({x[0]:.1f}, {x[1]:.1f}), Speed: {x[3]:.1f}, "
                  f"Lateral error: {errors[-1]:.2f} m")

    return dict(
        center=center,
        states=np.array(states),
        refs=np.array(refs),
        prediction_horizons=prediction_horizons,
        errors=np.array(errors),
        fallbacks=fallbacks,
    )


def main():
    parser = argparse.ArgumentParser(description='Waypoint MPC closed-loop simulation')
    parser.add_argument('--config', type=str, default=None,
                        help='YAML config (defaults to the bundled one)')
    parser.add_argument('--track', type=str, default='sine', choices=sorted(TRACKS),
                        help='Synthetic road shape')
    parser.add_argument('--steps', type=int, default=400,
                        help='Maximum control cycles')
    parser.add_argument('--speed', type=float, default=None,
                        help='Reference speed (m/s)')
    parser.add_argument('--horizon', type=int, default=None,
                        help='MPC prediction horizon steps')
    parser.add_argument('--output', type=str, default='mpc_trajectory.gif',
                        help='Output GIF filename')
    parser.add_argument('--no-gif', action='store_true',
                        help='Skip rendering the animation')

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    config = load_config(args.config)
    if args.speed is not None:
        config = config.replace(reference_speed=args.speed)
    if args.horizon is not None:
        config = config.replace(horizon=PredictionHorizon(args.horizon, config.horizon.dt))

    print(f"Starting {args.track} simulation...")
    print(f"Reference speed: {config.reference_speed} m/s, horizon: "
          f"{config.horizon.steps} x {config.horizon.dt}s")
    run = run_simulation(config, steps=args.steps, track=args.track)

    errors = run["errors"]
    if len(errors):
        print(f"\nMean lateral error: {errors.mean():.3f} m, max: {errors.max():.3f} m, "
              f"fallback cycles: {run['fallbacks']}")

    if args.no_gif:
        return

    # Deferred so --no-gif runs without a plotting backend
    from waypoint_mpc.utils.plotting import create_trajectory_gif

    print("\nSimulation complete! Creating animated GIF...")
    create_trajectory_gif(
        run["states"], run["refs"], run["center"],
        prediction_horizons=run["prediction_horizons"],
        save_path=args.output, interval=100, fps=10,
    )
    print(f"Output: {args.output}")


if __name__ == "__main__":
    main()
