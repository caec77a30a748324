class ModelClientException(Exception):
    """
    Base exception for the estimation pipeline. stage names the pipeline step that failed.
    """

    stage = "estimation"

    def __init__(self, message, stage=None):
        super().__init__(message)
        if stage is not None:
            self.stage = stage

    def __str__(self):
        return f"[{self.stage}] {super().__str__()}"


class InputParameterException(ModelClientException, ValueError):
    stage = "input"


class FeatureBuildingException(ModelClientException):
    stage = "feature building"


class FittingException(ModelClientException):
    stage = "fitting"


class CalibrationException(ModelClientException):
    stage = "calibration"


class ModelNotEnoughSubunitsException(CalibrationException):
    pass


class AggregationException(ModelClientException):
    stage = "aggregation"


class PartitionException(ModelClientException, AssertionError):
    stage = "feature building"
