#!/usr/bin/env python3

import os
import argparse
import logging
from fiducial_localization.data_structures import LocalizationMethod
from fiducial_localization.parameters import LocalizationParameters
from fiducial_localization.pipeline import FiducialLocalizer
from fiducial_localization.preprocessing import load_volume, roi_around_point

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Localize spherical fiducial markers in a CT volume"
    )
    parser.add_argument('--input', required=True,
                        help='Input CT volume')
    parser.add_argument('--output-folder', default='output_fiducials',
                        help='Directory for results and log file (default: output_fiducials)')
    parser.add_argument('--methods', nargs='+', default=[m.value for m in LocalizationMethod],
                        choices=[m.value for m in LocalizationMethod],
                        help='Localization methods to run (default: all)')

    roi_group = parser.add_argument_group('Regions of Interest')
    roi_group.add_argument('--roi', nargs=6, type=int, action='append', default=[],
                           metavar=('X', 'Y', 'Z', 'SX', 'SY', 'SZ'),
                           help='ROI start index and size in voxels (repeatable)')
    roi_group.add_argument('--point', nargs=3, type=float, action='append', default=[],
                           metavar=('X', 'Y', 'Z'),
                           help='Approximate marker position in mm (repeatable)')
    roi_group.add_argument('--half-width', type=float, default=10.0,
                           help='Half width in mm of the box around each --point (default: 10.0)')

    param_group = parser.add_argument_group('Parameter Selection')
    param_group.add_argument('--parameter-set', default='default',
                             choices=list(LocalizationParameters.get_parameter_sets()),
                             help='Predefined parameter set')

    override_group = parser.add_argument_group('Parameter Overrides')
    override_group.add_argument('--canny-lower-threshold', type=float,
                                help='Canny lower threshold (default: 50.0)')
    override_group.add_argument('--canny-upper-threshold', type=float,
                                help='Canny upper threshold (default: 150.0)')
    override_group.add_argument('--canny-variance', type=float,
                                help='Canny smoothing variance in mm^2 (default: 1.0)')
    override_group.add_argument('--min-component-voxels', type=int,
                                help='Minimum segmented component size (default: 10)')

    args = parser.parse_args(argv)
    if not args.roi and not args.point:
        parser.error('at least one --roi or --point is required')

    custom_params = {
        key: getattr(args, key)
        for key in ('canny_lower_threshold', 'canny_upper_threshold',
                    'canny_variance', 'min_component_voxels')
        if getattr(args, key) is not None
    }
    args.custom_params = custom_params if custom_params else None
    return args


def main(argv=None):
    """Main entry point for fiducial localization"""
    args = parse_args(argv)

    params = LocalizationParameters.get_parameter_sets()[args.parameter_set]
    if args.custom_params:
        params = LocalizationParameters.from_dict(args.custom_params, base=params)

    image = load_volume(args.input)
    rois = [(roi[:3], roi[3:]) for roi in args.roi]
    rois.extend(roi_around_point(image, point, args.half_width) for point in args.point)

    localizer = FiducialLocalizer(
        image,
        params=params,
        methods=args.methods,
        output_dir=args.output_folder
    )
    results = localizer.process(rois)

    for result in results:
        if result.succeeded:
            center = ', '.join(f'{v:.3f}' for v in result.estimate.center)
            print(f"ROI {result.roi_id} [{result.method.value}]: center=({center}) radius={result.estimate.radius:.3f}")
        else:
            print(f"ROI {result.roi_id} [{result.method.value}]: FAILED ({result.error})")
    logger.info(f"Results saved to {os.path.join(args.output_folder, 'fiducials.json')}")


if __name__ == "__main__":
    main()
