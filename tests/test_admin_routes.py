"""
Admin API tests
"""
import pytest
from httpx import AsyncClient

from skillup.core.security import FACULTY, STUDENT
from skillup.services import enrollment

from tests.conftest import auth_headers, grades_for, utc


@pytest.mark.asyncio
class TestAdminPeople:
    async def test_add_student_with_batches(self, client: AsyncClient, db, admin, classroom):
        response = await client.post('/api/admin/students/add', headers=auth_headers(admin), json={
            'first_name': 'New', 'last_name': 'Student', 'email': 'new.student@example.com',
            'username': 'newbie', 'password': 'secret123', 'roll_number': 'cs99',
            'batch_ids': [classroom['batch']['id']],
        })

        assert response.status_code == 201
        student = response.json()['data']
        assert student['batches'][0]['id'] == classroom['batch']['id']
        assert student['id'] in grades_for(db, classroom['task']['id'])

    async def test_add_student_unknown_batch(self, client: AsyncClient, db, admin):
        response = await client.post('/api/admin/students/add', headers=auth_headers(admin), json={
            'first_name': 'New', 'last_name': 'Student', 'email': 'x@example.com',
            'username': 'x1', 'password': 'secret123', 'roll_number': 'cs98',
            'batch_ids': ['missing'],
        })
        assert response.status_code == 400
        assert not [u for u in db.rows('users') if u['role'] == STUDENT]

    async def test_list_students_paginated(self, client: AsyncClient, admin, make_user):
        for _ in range(3):
            make_user(STUDENT)
        response = await client.get('/api/admin/students/all?page=1&limit=2', headers=auth_headers(admin))

        body = response.json()
        assert response.status_code == 200
        assert len(body['data']) == 2
        assert body['pagination'] == {'total': 3, 'page': 1, 'totalPages': 2}

    async def test_update_student_batches(self, client: AsyncClient, db, admin, classroom, make_batch):
        s1 = classroom['students'][0]
        other = make_batch([])
        response = await client.put(
            f"/api/admin/students/update/{s1['id']}",
            headers=auth_headers(admin),
            json={'batch_ids': [other['id']]},
        )

        assert response.status_code == 200
        assert [b['id'] for b in response.json()['data']['batches']] == [other['id']]
        assert s1['id'] not in grades_for(db, classroom['task']['id'])

    async def test_delete_faculty_returns_orphans(self, client: AsyncClient, admin, classroom):
        response = await client.delete(
            f"/api/admin/faculty/delete/{classroom['faculty']['id']}",
            headers=auth_headers(admin),
        )
        assert response.status_code == 200
        assert response.json()['data']['orphaned_courses'] == [classroom['course']['id']]

    async def test_missing_student_is_404(self, client: AsyncClient, admin):
        response = await client.delete('/api/admin/students/delete/nope', headers=auth_headers(admin))
        assert response.status_code == 404


@pytest.mark.asyncio
class TestAdminCoursesAndBatches:
    async def test_create_course_enrolls_batches(self, client: AsyncClient, db, admin, faculty, make_user, make_batch):
        s = make_user(STUDENT)
        batch = make_batch([s['id']])
        response = await client.post('/api/admin/courses/add', headers=auth_headers(admin), json={
            'course_code': 'ml101', 'title': 'Machine Learning', 'status': 'Active',
            'faculty_ids': [faculty['id']], 'batch_ids': [batch['id']],
        })

        assert response.status_code == 201
        course = response.json()['data']
        assert course['course_code'] == 'ML101'
        assert course['student_count'] == 1
        assert enrollment.is_enrolled(db, s['id'], course['id'])

    async def test_duplicate_course_code(self, client: AsyncClient, admin, classroom):
        response = await client.post('/api/admin/courses/add', headers=auth_headers(admin), json={
            'course_code': classroom['course']['course_code'].lower(), 'title': 'Copy',
        })
        assert response.status_code == 409

    async def test_duplicate_batch(self, client: AsyncClient, admin, classroom):
        batch = classroom['batch']
        response = await client.post('/api/admin/batches/add', headers=auth_headers(admin), json={
            'name': batch['name'], 'academic_year': batch['academic_year'], 'department': batch['department'],
        })
        assert response.status_code == 409

    async def test_update_batch_roster(self, client: AsyncClient, db, admin, classroom, make_user):
        s1, s2 = classroom['students']
        s3 = make_user(STUDENT)
        response = await client.put(
            f"/api/admin/batches/update/{classroom['batch']['id']}",
            headers=auth_headers(admin),
            json={'student_ids': [s2['id'], s3['id']]},
        )

        assert response.status_code == 200
        assert {s['id'] for s in response.json()['data']['students']} == {s2['id'], s3['id']}
        assert set(grades_for(db, classroom['task']['id'])) == {s2['id'], s3['id']}

    async def test_delete_course_cascades(self, client: AsyncClient, db, admin, classroom):
        response = await client.delete(
            f"/api/admin/courses/delete/{classroom['course']['id']}",
            headers=auth_headers(admin),
        )
        assert response.status_code == 200
        assert db.rows('tasks') == []
        assert db.rows('grades') == []

    async def test_assignables_search(self, client: AsyncClient, admin, classroom):
        headers = auth_headers(admin)
        name = classroom['faculty']['first_name']
        found = await client.get('/api/admin/search/assignables', params={'type': 'faculty', 'q': name}, headers=headers)
        assert classroom['faculty']['id'] in [f['id'] for f in found.json()['data']]

        bad = await client.get('/api/admin/search/assignables?type=room&q=abc', headers=headers)
        assert bad.status_code == 400


@pytest.mark.asyncio
class TestAdminTasks:
    async def test_add_task_owned_by_first_faculty(self, client: AsyncClient, db, admin, classroom):
        response = await client.post('/api/admin/tasks/add', headers=auth_headers(admin), json={
            'title': 'Quiz 1', 'type': 'Quiz', 'course_id': classroom['course']['id'],
            'due_date': utc(2).isoformat(), 'max_points': 20,
        })

        assert response.status_code == 201
        task = response.json()['data']
        assert task['created_by'] == classroom['faculty']['id']
        assert task['status'] == 'Active'
        assert len(grades_for(db, task['id'])) == 2

    async def test_add_task_without_faculty(self, client: AsyncClient, admin, make_course):
        course = make_course([], [])
        response = await client.post('/api/admin/tasks/add', headers=auth_headers(admin), json={
            'title': 'Quiz 1', 'course_id': course['id'], 'due_date': utc(2).isoformat(),
        })
        assert response.status_code == 400

    async def test_inverted_window_is_rejected(self, client: AsyncClient, admin, classroom):
        response = await client.post('/api/admin/tasks/add', headers=auth_headers(admin), json={
            'title': 'Bad', 'course_id': classroom['course']['id'],
            'publish_date': utc(5).isoformat(), 'due_date': utc(1).isoformat(),
        })
        assert response.status_code == 400

    async def test_move_task_to_course_without_faculty(self, client: AsyncClient, db, admin, classroom, make_course):
        course = make_course([], [])
        response = await client.put(
            f"/api/admin/tasks/update/{classroom['task']['id']}",
            headers=auth_headers(admin),
            json={'course_id': course['id']},
        )
        assert response.status_code == 400
        assert response.json()['message'] == 'New course is invalid or has no assigned faculty.'
        assert len(grades_for(db, classroom['task']['id'])) == 2

    async def test_move_task_hands_it_to_new_course_faculty(self, client: AsyncClient, admin, classroom, make_user, make_course):
        teacher = make_user(FACULTY)
        course = make_course([teacher['id']], [])
        response = await client.put(
            f"/api/admin/tasks/update/{classroom['task']['id']}",
            headers=auth_headers(admin),
            json={'course_id': course['id']},
        )
        assert response.status_code == 200
        assert response.json()['data']['course_id'] == course['id']
        assert response.json()['data']['created_by'] == teacher['id']

    async def test_grade_and_list_submissions(self, client: AsyncClient, db, admin, classroom):
        task = classroom['task']
        s1, s2 = classroom['students']
        grade_id = grades_for(db, task['id'])[s1['id']]['id']
        headers = auth_headers(admin)

        graded = await client.post(f"/api/admin/tasks/{task['id']}/grade", headers=headers, json={
            'grades': [{'grade_id': grade_id, 'grade': '75', 'feedback': 'ok'}],
        })
        assert graded.status_code == 200
        assert graded.json()['data']['updated'] == [grade_id]
        assert grades_for(db, task['id'])[s1['id']]['grader_role'] == 'admin'

        listing = await client.get(f"/api/admin/tasks/{task['id']}/submissions", headers=headers)
        rows = {r['student']['id']: r for r in listing.json()['data']['submissions']}
        assert set(rows) == {s1['id'], s2['id']}
        assert rows[s2['id']]['status'] == 'Not Submitted'
        assert rows[s1['id']]['grade'] == 75

    async def test_empty_grade_list_is_rejected(self, client: AsyncClient, admin, classroom):
        response = await client.post(
            f"/api/admin/tasks/{classroom['task']['id']}/grade",
            headers=auth_headers(admin),
            json={'grades': []},
        )
        assert response.status_code == 400

    async def test_task_details_stats(self, client: AsyncClient, admin, classroom):
        response = await client.get(f"/api/admin/tasks/details/{classroom['task']['id']}", headers=auth_headers(admin))
        assert response.json()['data']['stats'] == {'enrolled': 2, 'submitted': 0, 'graded': 0}


@pytest.mark.asyncio
class TestAdminSettings:
    async def test_defaults_then_update(self, client: AsyncClient, admin):
        headers = auth_headers(admin)
        first = await client.get('/api/admin/settings', headers=headers)
        assert first.json()['data']['platform_name'] == 'SkillUp Platform'

        updated = await client.put('/api/admin/settings', headers=headers, json={'maintenance_mode': True})
        assert updated.status_code == 200
        assert updated.json()['data']['maintenance_mode'] is True
        assert updated.json()['data']['platform_name'] == 'SkillUp Platform'
