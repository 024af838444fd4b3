"""
Root GraphQL schema. The habits app owns every query and mutation; the
project schema only stitches them together.
"""
import graphene
from habits.schema import Query as HabitsQuery, Mutation as HabitsMutation


class Query(HabitsQuery, graphene.ObjectType):
    pass


class Mutation(HabitsMutation, graphene.ObjectType):
    pass


schema = graphene.Schema(query=Query, mutation=Mutation)
