'''
API endpoints for managing Students.
'''
from typing import Annotated, Any
from uuid import UUID
from fastapi import APIRouter, Depends, status

from ..models import student as student_models
from ..services.student_service import StudentService

class StudentsAPI:
    """
    A class to encapsulate endpoints for Students.
    """
    def __init__(self):
        self.router = APIRouter(
            prefix="/students",
            tags=["Students"]
        )
        self._register_routes()

    def _register_routes(self):
        """Registers all the API routes for this class."""
        self.router.add_api_route(
                "/",
                self.list_students,
                methods=["GET"],
                response_model=list[student_models.StudentRead])
        self.router.add_api_route(
                "/{student_id}",
                self.get_student,
                methods=["GET"],
                response_model=student_models.StudentRead)
        self.router.add_api_route(
                "/",
                self.create_student,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=student_models.StudentRead)
        self.router.add_api_route(
                "/{student_id}/fee",
                self.update_fee,
                methods=["PATCH"],
                response_model=student_models.StudentRead)
        self.router.add_api_route(
                "/{student_id}",
                self.delete_student,
                methods=["DELETE"])

    async def list_students(
        self,
        student_service: Annotated[StudentService, Depends(StudentService)]
    ) -> list[Any]:
        """
        Retrieves every enrolled student.
        """
        return await student_service.list_students()

    async def get_student(
        self,
        student_id: UUID,
        student_service: Annotated[StudentService, Depends(StudentService)]
    ) -> Any:
        return await student_service.get_student(student_id)

    async def create_student(
        self,
        student_data: student_models.StudentCreate,
        student_service: Annotated[StudentService, Depends(StudentService)]
    ) -> Any:
        """
        Enrolls a student. The balance starts at the fee unless mark_as_paid is set.
        """
        return await student_service.create_student(student_data.model_dump())

    async def update_fee(
        self,
        student_id: UUID,
        fee_data: student_models.StudentFeeUpdate,
        student_service: Annotated[StudentService, Depends(StudentService)]
    ) -> Any:
        """
        Changes the recurring fee; it is charged from the next reconciliation on.
        """
        return await student_service.update_fee(student_id, fee_data.fee)

    async def delete_student(
        self,
        student_id: UUID,
        student_service: Annotated[StudentService, Depends(StudentService)]
    ):
        """
        Withdraws a student together with its balance and payment history.
        """
        await student_service.delete_student(student_id)
        return {"message": "Student deleted successfully."}

# Instantiate the class and export its router
students_api = StudentsAPI()
router = students_api.router
