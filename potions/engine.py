"""
Formulation engine.

Runs the calculation pipeline end to end and exposes the request/response
contract used by the CLI and HTTP surfaces:

    raw mapping -> SurveyRecord -> ValidationResult -> IntakeAnalysis
        -> UseCase -> Composition -> ClampReport -> FormulationResult

Every stage is a pure function of its inputs. The only shared state is the
optional ConversionCache held by the normalizer.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from loguru import logger
from pydantic import ValidationError

from potions.assembler import FormulationAssembler
from potions.config import Settings, get_settings
from potions.errors import (
    VALIDATION_ERROR,
    FormulationError,
    InvalidRequestError,
    UnknownElectrolyteError,
)
from potions.intake import (
    ConversionCache,
    IntakeNormalizer,
    convert_mg_to_servings,
    detect_format,
    parse_serving_count,
    to_electrolyte,
)
from potions.multipliers import MultiplierPipeline
from potions.safety import SafetyClamp
from potions.schemas import (
    BatchConversionInput,
    BatchConversionItem,
    BatchConversionOutput,
    BatchConversionResult,
    CalculationData,
    CalculationResponse,
    CalculationTrace,
    ConversionData,
    ConversionInput,
    ConversionOutput,
    Electrolyte,
    ErrorInfo,
    FormulaCalculationRequest,
    IntakeConversionResult,
    IntakeFieldPreview,
    IntakeFormat,
    IntakeValidationResponse,
    SurveyRecord,
    ValidationResult,
    coerce_intake_value,
    intake_field_label,
)
from potions.trace import CalculationTraceBuilder
from potions.use_case import UseCaseClassifier
from potions.validator import CustomerDataValidator, validate_intake_format

CustomerData = Union[SurveyRecord, Mapping[str, Any]]

TO_MG = "to-mg"
FROM_MG = "from-mg"


def format_validation_errors(exc: ValidationError) -> List[str]:
    return [
        f"{'.'.join(str(part) for part in error['loc']) or 'record'}: {error['msg']}"
        for error in exc.errors()
    ]


def parse_survey_record(customer_data: Any) -> SurveyRecord:
    """
    Parse raw customer data into a defaulted SurveyRecord.

    Raises:
        InvalidRequestError: If the data is missing, not a mapping, or holds a
            value of the wrong type or an unknown enum tag
    """
    if isinstance(customer_data, SurveyRecord):
        return customer_data
    if customer_data is None:
        raise InvalidRequestError("Missing customerData in request body")
    if not isinstance(customer_data, Mapping):
        raise InvalidRequestError("customerData must be an object")
    try:
        return SurveyRecord.model_validate(dict(customer_data))
    except ValidationError as e:
        raise InvalidRequestError("Invalid customer data", format_validation_errors(e)) from e


def error_response(exc: FormulationError) -> CalculationResponse:
    return CalculationResponse(
        success=False,
        error=ErrorInfo(code=exc.code, message=exc.message, details=exc.details or None),
    )


class FormulationEngine:
    """
    Deterministic electrolyte formulation engine.

    Collaborators are injected so tests (and the trace) can observe each
    stage; defaults build a cache-less engine.
    """

    def __init__(
        self,
        normalizer: Optional[IntakeNormalizer] = None,
        validator: Optional[CustomerDataValidator] = None,
        classifier: Optional[UseCaseClassifier] = None,
        pipeline: Optional[MultiplierPipeline] = None,
        clamp: Optional[SafetyClamp] = None,
        assembler: Optional[FormulationAssembler] = None,
    ):
        self.normalizer = normalizer or IntakeNormalizer()
        self.validator = validator or CustomerDataValidator()
        self.classifier = classifier or UseCaseClassifier()
        self.pipeline = pipeline or MultiplierPipeline()
        self.clamp = clamp or SafetyClamp()
        self.assembler = assembler or FormulationAssembler()

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "FormulationEngine":
        """Build an engine whose conversion cache follows the settings."""
        settings = settings or get_settings()
        cache = (
            ConversionCache(settings.conversion_cache_capacity)
            if settings.conversion_cache_enabled
            else None
        )
        return cls(normalizer=IntakeNormalizer(cache))

    # ------------------------------------------------------------------
    # Calculation
    # ------------------------------------------------------------------

    def calculate(self, customer_data: CustomerData) -> CalculationResponse:
        """
        Validate a survey record and calculate its formulation.

        Args:
            customer_data: SurveyRecord or raw mapping (any key spelling)

        Returns:
            CalculationResponse: success with formulation and intake analysis,
            or failure with VALIDATION_ERROR / INVALID_REQUEST
        """
        response, _ = self._run(customer_data, validate_only=False, trace=None)
        return response

    def validate_only(self, customer_data: CustomerData) -> CalculationResponse:
        """Validate and analyze intake without calculating a formulation."""
        response, _ = self._run(customer_data, validate_only=True, trace=None)
        return response

    def calculate_with_trace(
        self, customer_data: CustomerData, validate_only: bool = False
    ) -> Tuple[CalculationResponse, CalculationTrace]:
        """Same as calculate, also returning the trace of every stage."""
        builder = CalculationTraceBuilder()
        response, builder = self._run(customer_data, validate_only, builder)
        return response, builder.trace

    def handle_request(self, payload: Any) -> CalculationResponse:
        """
        Handle a {customerData, options: {validateOnly}} request envelope.

        Structural problems produce an INVALID_REQUEST response rather than
        an exception.
        """
        if not isinstance(payload, Mapping):
            return error_response(InvalidRequestError("Request body must be a JSON object"))
        try:
            request = FormulaCalculationRequest.model_validate(dict(payload))
        except ValidationError as e:
            return error_response(
                InvalidRequestError("Invalid request body", format_validation_errors(e))
            )

        if request.customer_data is None:
            return error_response(InvalidRequestError("Missing customerData in request body"))

        if request.options.validate_only:
            return self.validate_only(request.customer_data)
        return self.calculate(request.customer_data)

    def _run(
        self,
        customer_data: CustomerData,
        validate_only: bool,
        trace: Optional[CalculationTraceBuilder],
    ) -> Tuple[CalculationResponse, Optional[CalculationTraceBuilder]]:
        try:
            record = parse_survey_record(customer_data)
        except InvalidRequestError as e:
            logger.info(f"Rejected unparseable survey record: {e.message}")
            if trace is not None:
                trace.add_stage("parse", e.message, {"details": e.details})
                trace.set_result("refused")
            return error_response(e), trace

        analysis = self.normalizer.analyze(record)
        validation = self.validator.validate(record)
        validation = ValidationResult.from_messages(
            validation.errors, validation.warnings + analysis.warnings
        )

        if trace is not None:
            trace.add_intake_analysis(analysis)
            trace.add_validation(validation)

        if not validation.is_valid:
            if trace is not None:
                trace.set_result("refused")
            return (
                CalculationResponse(
                    success=False,
                    validation=validation,
                    error=ErrorInfo(
                        code=VALIDATION_ERROR,
                        message="Customer data validation failed",
                        details=list(validation.errors),
                    ),
                ),
                trace,
            )

        if validate_only:
            if trace is not None:
                trace.set_result("validated")
            return (
                CalculationResponse(
                    success=True,
                    data=CalculationData(formulation=None, intake_analysis=analysis),
                    validation=validation,
                ),
                trace,
            )

        use_case, reason = self.classifier.classify_with_reason(record)
        composition = self.pipeline.run(use_case, record)
        report = self.clamp.apply(composition.amounts, use_case)
        formulation = self.assembler.assemble(
            use_case,
            report.amounts,
            record,
            analysis,
            composition=composition,
            clamp_report=report,
        )

        logger.info(
            f"Calculated {use_case.value} formulation ({reason}): "
            f"{formulation.formulation_per_serving.as_dict()}"
        )

        if trace is not None:
            trace.add_classification(use_case, reason)
            trace.add_composition(composition)
            trace.add_clamp(report)
            trace.add_formulation(formulation)
            trace.set_result("calculated")

        return (
            CalculationResponse(
                success=True,
                data=CalculationData(formulation=formulation, intake_analysis=analysis),
                validation=validation,
            ),
            trace,
        )

    # ------------------------------------------------------------------
    # Intake conversion
    # ------------------------------------------------------------------

    def convert(
        self, value: Any, electrolyte: Any, direction: str = TO_MG
    ) -> IntakeConversionResult:
        """
        Convert one intake value to mg, or an mg amount back to servings.

        Args:
            value: Intake value (to-mg) or daily mg amount (from-mg)
            electrolyte: Electrolyte name
            direction: "to-mg" or "from-mg"

        Returns:
            IntakeConversionResult envelope
        """
        text = coerce_intake_value(value)
        if text is None or text == "" or not electrolyte:
            return self._conversion_error(
                InvalidRequestError("Missing required fields: value and electrolyte")
            )
        text = str(text)

        try:
            resolved = to_electrolyte(electrolyte)
        except UnknownElectrolyteError as e:
            return self._conversion_error(e)

        if direction == FROM_MG:
            mg = parse_serving_count(text)
            if mg is None:
                return self._conversion_error(
                    FormulationError(f"Invalid mg amount: '{text}'"), code=VALIDATION_ERROR
                )
            return IntakeConversionResult(
                success=True,
                data=ConversionData(
                    input=ConversionInput(value=text),
                    output=ConversionOutput(servings=convert_mg_to_servings(mg, resolved)),
                    electrolyte=resolved,
                ),
            )

        if direction != TO_MG:
            return self._conversion_error(
                InvalidRequestError(f"Unknown direction '{direction}'. Use 'to-mg' or 'from-mg'")
            )

        validation = validate_intake_format(text, intake_field_label(resolved))
        if not validation.is_valid:
            return self._conversion_error(
                FormulationError(f"Invalid intake format: {', '.join(validation.errors)}"),
                code=VALIDATION_ERROR,
            )

        return IntakeConversionResult(
            success=True,
            data=ConversionData(
                input=ConversionInput(value=text, format=detect_format(text)),
                output=ConversionOutput(mg=self.normalizer.convert_to_mg(text, resolved)),
                electrolyte=resolved,
            ),
        )

    def _conversion_error(
        self, exc: FormulationError, code: Optional[str] = None
    ) -> IntakeConversionResult:
        return IntakeConversionResult(
            success=False,
            error=ErrorInfo(code=code or exc.code, message=exc.message),
        )

    def convert_batch(
        self, items: Iterable[Union[BatchConversionItem, Mapping[str, Any]]]
    ) -> List[BatchConversionResult]:
        """
        Convert many intake values independently.

        The output has the same length and order as the input; one failing
        item never affects the others. Items without an id get
        "conversion_<index>".
        """
        results = []
        for index, raw in enumerate(items):
            item_id = f"conversion_{index}"
            try:
                item = (
                    raw if isinstance(raw, BatchConversionItem)
                    else BatchConversionItem.model_validate(raw)
                )
                item_id = str(item.id) if item.id not in (None, "") else item_id
                results.append(self._convert_batch_item(item, item_id))
            except (ValidationError, TypeError, ValueError) as e:
                logger.warning(f"Batch conversion {item_id} failed: {e}")
                results.append(self._failed_batch_item(raw, item_id, "Conversion failed"))
        return results

    def _convert_batch_item(self, item: BatchConversionItem, item_id: str) -> BatchConversionResult:
        try:
            electrolyte = to_electrolyte(item.electrolyte)
        except UnknownElectrolyteError:
            return self._failed_batch_item(item, item_id, "Invalid electrolyte")

        text = coerce_intake_value(item.value)
        text = "" if text is None else str(text)

        validation = validate_intake_format(text, intake_field_label(electrolyte))
        if not validation.is_valid:
            return self._failed_batch_item(item, item_id, ", ".join(validation.errors))

        return BatchConversionResult(
            id=item_id,
            input=BatchConversionInput(
                value=text, electrolyte=electrolyte.value, format=detect_format(text).value
            ),
            output=BatchConversionOutput(mg=self.normalizer.convert_to_mg(text, electrolyte)),
            success=True,
        )

    def _failed_batch_item(self, item: Any, item_id: str, error: str) -> BatchConversionResult:
        if isinstance(item, BatchConversionItem):
            value, electrolyte = item.value, item.electrolyte
        elif isinstance(item, Mapping):
            value, electrolyte = item.get("value"), item.get("electrolyte")
        else:
            value, electrolyte = item, None
        return BatchConversionResult(
            id=item_id,
            input=BatchConversionInput(
                value="" if value is None else str(value),
                electrolyte="" if electrolyte is None else str(electrolyte),
                format="unknown",
            ),
            output=BatchConversionOutput(mg=0),
            success=False,
            error=error,
        )

    # ------------------------------------------------------------------
    # Intake field validation
    # ------------------------------------------------------------------

    def validate_intake_fields(self, fields: Any) -> IntakeValidationResponse:
        """
        Validate intake fields and preview their conversions.

        Fields may be keyed "sodium-intake", "sodiumIntake" or "sodium_intake".
        Only supplied fields are checked; previews are included for the valid
        ones.
        """
        if not isinstance(fields, Mapping):
            return IntakeValidationResponse(
                success=False,
                validation=ValidationResult.from_messages(
                    ["Missing intakeFields in request body"]
                ),
            )

        result = ValidationResult.from_messages([])
        previews: Dict[str, IntakeFieldPreview] = {}

        for electrolyte in Electrolyte:
            found, value = _lookup_intake_field(fields, electrolyte)
            if not found:
                continue

            text = coerce_intake_value(value)
            text = "" if text is None else str(text)
            field_result = validate_intake_format(text, intake_field_label(electrolyte))
            result = result.merge(field_result)

            if field_result.is_valid:
                previews[electrolyte.value] = IntakeFieldPreview(
                    input=text,
                    mg=self.normalizer.convert_to_mg(text, electrolyte),
                    format=detect_format(text) if text else IntakeFormat.LEGACY,
                )

        return IntakeValidationResponse(
            success=result.is_valid,
            validation=result,
            conversions=previews or None,
        )


def _lookup_intake_field(fields: Mapping[str, Any], electrolyte: Electrolyte) -> Tuple[bool, Any]:
    name = electrolyte.value
    for key in (f"{name}-intake", f"{name}Intake", f"{name}_intake"):
        if key in fields:
            return True, fields[key]
    return False, None
