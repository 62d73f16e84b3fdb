from abc import ABC, abstractmethod

from app.schemas.annotations import AnnotationRow


class AbstractSheetsClient(ABC):
	"""Interface for the spreadsheet store used by the annotation workflow."""

	@abstractmethod
	async def append_annotation(
		self,
		access_token: str,
		spreadsheet_id: str,
		row: AnnotationRow,
	) -> None:
		"""Append one row to the spreadsheet's annotation log.

		Args:
			access_token: OAuth access token of the acting user.
			spreadsheet_id: Target spreadsheet id.
			row: Annotation to log.

		Raises:
			SheetsAppError: If the store call fails.
		"""
		...

	@abstractmethod
	async def update_payment_formulas(self, access_token: str, spreadsheet_id: str) -> None:
		"""Rewrite the per-annotator payment formulas of a spreadsheet.

		Args:
			access_token: OAuth access token used for the refresh.
			spreadsheet_id: Target spreadsheet id.

		Raises:
			SheetsAppError: If the store call fails.
		"""
		...

	async def aclose(self) -> None:
		"""Release underlying connections."""
