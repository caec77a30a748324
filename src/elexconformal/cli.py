import ast

import click
from dotenv import find_dotenv, load_dotenv

dotenv_path = find_dotenv()
if len(dotenv_path.strip()) == 0:
    dotenv_path = find_dotenv(usecwd=True)
load_dotenv(dotenv_path)

from elexconformal.client import ModelClient  # noqa: E402
from elexconformal.handlers import s3  # noqa: E402
from elexconformal.handlers.data.LiveData import MockLiveDataHandler  # noqa: E402
from elexconformal.utils.constants import DEFAULT_SEED  # noqa: E402
from elexconformal.utils.file_utils import TARGET_BUCKET  # noqa: E402


class PythonLiteralOption(click.Option):
    def type_cast_value(self, ctx, value):
        try:
            return ast.literal_eval(value)
        except ValueError as e:
            raise click.BadParameter(value) from e


@click.command()
@click.argument("election_id")
@click.option("--fixed_effects", "fixed_effects", default=[], multiple=True)
@click.option("--features", default=[], multiple=True)
@click.option("--aggregates", multiple=True)
@click.option("--prediction_intervals", "prediction_intervals", default=[0.8], multiple=True, type=float)
@click.option(
    "--geographic_unit_type",
    "geographic_unit_type",
    default="county",
    type=click.Choice(["county", "precinct", "county-district", "precinct-district"]),
)
@click.option("--robust", "robust", is_flag=True, help="take the larger of the two conformal corrections")
@click.option("--seed", "seed", default=DEFAULT_SEED, type=int, help="seed for the conformalization split")
@click.option(
    "--lambda",
    "lambda_",
    default=0.0,
    type=click.FloatRange(min=0),
    help="regularization constant of the quantile regression",
)
@click.option(
    "--model_settings",
    "model_settings",
    default="{}",
    cls=PythonLiteralOption,
    help="A dictionary of model settings, overrides the individual options",
)
@click.option(
    "--percent_reporting",
    "percent_reporting",
    default=100,
    type=click.IntRange(min=0, max=100),
    help="percent of units reporting. For testing purposes.",
)
@click.option(
    "--unexpected_units",
    "unexpected_units",
    default=0,
    type=int,
    help="number of reporting unexpected units to include. For testing purposes.",
)
@click.option("--evaluate", "evaluate", is_flag=True, help="compare the estimates to the full results")
@click.option(
    "--save_output",
    "save_output",
    default=[],
    multiple=True,
    type=click.Choice(["results", "data", "config", "conformalization"]),
    help="options: results, data, config, conformalization",
)
def cli(election_id, prediction_intervals, geographic_unit_type, **kwargs):
    """
    This tool accepts an election ID (e.g. "2021-11-02_VA_G") and the options below and outputs formatted model data.
    """
    percent_reporting = kwargs["percent_reporting"]
    unexpected_units = kwargs["unexpected_units"]

    model_settings = {
        "fixed_effects": list(kwargs["fixed_effects"]),
        "features": list(kwargs["features"]),
        "robust": kwargs["robust"],
        "seed": kwargs["seed"],
        "lambda_": kwargs["lambda_"],
    }
    model_settings.update(kwargs["model_settings"])

    estimate_kwargs = {"save_output": list(kwargs["save_output"])}
    if len(kwargs["aggregates"]) > 0:
        estimate_kwargs["aggregates"] = list(kwargs["aggregates"])

    prediction_intervals = list(prediction_intervals)

    # Read data
    data_handler = MockLiveDataHandler(
        election_id,
        geographic_unit_type,
        unexpected_units=unexpected_units,
        s3_client=s3.S3CsvUtil(TARGET_BUCKET),
    )

    data_handler.shuffle(seed=model_settings["seed"])
    data = data_handler.get_percent_fully_reported(percent_reporting)

    model_client = ModelClient()
    result = model_client.get_estimates(
        data,
        election_id,
        prediction_intervals,
        geographic_unit_type,
        model_settings=model_settings,
        **estimate_kwargs,
    )

    for aggregate_level, estimates in result.items():
        print(aggregate_level, "\n", estimates, "\n")

    if kwargs["evaluate"]:
        evaluation = model_client.evaluate_estimates(data)
        for aggregate_level, metrics in evaluation.items():
            print("evaluation", aggregate_level, "\n", metrics, "\n")
