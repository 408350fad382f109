"""
Student API tests
"""
import pytest
from httpx import AsyncClient

from tests.conftest import auth_headers, grades_for, utc


@pytest.mark.asyncio
class TestStudentCourses:
    async def test_only_enrolled_courses(self, client: AsyncClient, classroom, make_course):
        make_course([classroom['faculty']['id']], [])
        response = await client.get('/api/student/courses/all', headers=auth_headers(classroom['students'][0]))

        assert [c['id'] for c in response.json()['data']] == [classroom['course']['id']]

    async def test_foreign_course_forbidden(self, client: AsyncClient, classroom, make_course):
        other = make_course([classroom['faculty']['id']], [])
        response = await client.get(
            f"/api/student/courses/details/{other['id']}",
            headers=auth_headers(classroom['students'][0]),
        )
        assert response.status_code == 403

    async def test_course_details(self, client: AsyncClient, classroom):
        response = await client.get(
            f"/api/student/courses/details/{classroom['course']['id']}",
            headers=auth_headers(classroom['students'][0]),
        )
        data = response.json()['data']
        assert [t['id'] for t in data['tasks']] == [classroom['task']['id']]
        assert len(data['grades']) == 1


@pytest.mark.asyncio
class TestStudentTasks:
    async def test_task_list_shows_submission_state(self, client: AsyncClient, classroom):
        s1 = classroom['students'][0]
        headers = auth_headers(s1)
        before = await client.get('/api/student/tasks/all', headers=headers)
        assert before.json()['data'][0]['submission_status'] == 'Not Submitted'

        await client.post(f"/api/student/tasks/{classroom['task']['id']}/submit", headers=headers, json={'content': 'done'})

        after = await client.get('/api/student/tasks/all', headers=headers)
        assert after.json()['data'][0]['submission_status'] == 'Submitted'

    async def test_task_details(self, client: AsyncClient, classroom):
        response = await client.get(
            f"/api/student/tasks/details/{classroom['task']['id']}",
            headers=auth_headers(classroom['students'][0]),
        )
        data = response.json()['data']
        assert data['task']['status'] == 'Active'
        assert data['task']['created_by_name'] == f"{classroom['faculty']['first_name']} {classroom['faculty']['last_name']}"
        assert data['submission'] is None
        assert data['is_deadline_passed'] is False

    async def test_submit(self, client: AsyncClient, db, classroom):
        s1 = classroom['students'][0]
        response = await client.post(
            f"/api/student/tasks/{classroom['task']['id']}/submit",
            headers=auth_headers(s1),
            json={'content': 'answer', 'attachments': [{'file_name': 'a.pdf', 'url': 'https://files/a.pdf'}]},
        )

        assert response.status_code == 200
        submission = response.json()['data']['submission']
        assert submission['attachments'][0]['file_name'] == 'a.pdf'
        assert grades_for(db, classroom['task']['id'])[s1['id']]['submission_id'] == submission['id']

    async def test_submit_after_deadline(self, client: AsyncClient, classroom, make_task):
        closed = make_task(classroom['course']['id'], publish_date=utc(-5), due_date=utc(-1))
        response = await client.post(
            f"/api/student/tasks/{closed['id']}/submit",
            headers=auth_headers(classroom['students'][0]),
            json={'content': 'late'},
        )
        assert response.status_code == 400
        assert response.json()['message'] == 'Task deadline has passed.'

    async def test_submit_to_unknown_task(self, client: AsyncClient, student):
        response = await client.post('/api/student/tasks/nope/submit', headers=auth_headers(student), json={})
        assert response.status_code == 404

    async def test_submit_not_enrolled(self, client: AsyncClient, classroom, student):
        response = await client.post(
            f"/api/student/tasks/{classroom['task']['id']}/submit",
            headers=auth_headers(student),
            json={'content': 'x'},
        )
        assert response.status_code == 403


@pytest.mark.asyncio
class TestStudentGrades:
    async def test_only_graded_rows_with_percentage(self, client: AsyncClient, db, classroom, make_task):
        s1 = classroom['students'][0]
        make_task(classroom['course']['id'])
        db.table('grades').update({'grade': 45, 'status': 'Graded'}).eq('task_id', classroom['task']['id']).eq('student_id', s1['id']).execute()

        response = await client.get('/api/student/grades', headers=auth_headers(s1))

        rows = response.json()['data']
        assert len(rows) == 1
        assert rows[0]['percentage'] == 45.0
        assert rows[0]['course']['id'] == classroom['course']['id']
