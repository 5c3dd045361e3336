import argparse
import asyncio
import logging

from device_datasource.config import load_config, redact_cfg
from device_datasource.datasource import DataSource
from device_datasource.models import VARIABLE_ENTITIES, VariableQuery

logger = logging.getLogger(__name__)


def parse_variable(text: str):
    """
    Parse a NAME=VALUE binding. Comma separated values bind a multi-value variable.
    """
    name, sep, value = text.partition("=")
    if not sep or not name:
        raise argparse.ArgumentTypeError(f"Expected NAME=VALUE, got '{text}'")
    values = value.split(",")
    return name, values if len(values) > 1 else value


async def find_values(args) -> int:
    cfg = load_config(args.config)
    logger.debug("Loaded config %s", redact_cfg(cfg.model_dump(mode="json")))

    datasource = DataSource.from_config(cfg)
    for name, value in args.var or []:
        datasource.expander.set(name, value)

    query = VariableQuery(entity=args.entity, devices=args.devices)
    try:
        values = await datasource.metric_find_query(query)
    finally:
        await datasource.transport.aclose()

    for value in values:
        print(f"{value.text}\t{value.value}")
    return len(values)


if __name__ == "__main__":

    # INPUT ARGUMENTS
    # =======================================================

    example_usage = """
    Example usage:

    List all devices:
    $ python -m device_datasource.scripts.find_values -c ./configs/datasource.yaml -e Devices

    List the metrics of devices 1 and 2:
    $ python -m device_datasource.scripts.find_values -c ./configs/datasource.yaml -e Metrics --devices 1,2

    Use a template variable in the device filter:
    $ python -m device_datasource.scripts.find_values -e Metrics --devices '$device' --var device=1,2
    """
    parser = argparse.ArgumentParser(
        description="List the values of a device data source entity.",
        epilog=example_usage,
        formatter_class=argparse.RawDescriptionHelpFormatter)

    parser.add_argument(
        "--config",
        "-c",
        type=str,
        help="Path to the data source configuration file. Defaults to $DEVICE_DATASOURCE_CONFIG.",
    )
    parser.add_argument(
        "--entity",
        "-e",
        type=str,
        choices=VARIABLE_ENTITIES,
        default=VARIABLE_ENTITIES[0],
        help="Entity to list. Default is Devices.",
    )
    parser.add_argument(
        "--devices",
        "-d",
        type=str,
        help="Comma separated device ids restricting the Metrics entity. May reference variables.",
    )
    parser.add_argument(
        "--var",
        type=parse_variable,
        action="append",
        help="Template variable binding NAME=VALUE. Repeat for several variables.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging.",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    asyncio.run(find_values(args))
